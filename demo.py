import sys
import logging

from jcomm.kernel import KernelConnection


logging.basicConfig(level=logging.INFO)
log = logging.getLogger('demo')

kernel_name = sys.argv[1]

# Register an echo target in the kernel, then talk to it over a comm
SETUP = '''
def _echo_target(comm, open_msg):
    @comm.on_msg
    def _recv(msg):
        comm.send(msg['content']['data'])
get_ipython().kernel.comm_manager.register_target('echo', _echo_target)
'''


kernel = KernelConnection.from_kernel_name(kernel_name)
kernel.on_status = lambda state: log.info('status: %s', state)

future = kernel.execute_request(SETUP, silent=True)
future.on_done = lambda reply: log.info('setup: %s', reply['content']['status'])
kernel.poll(-1)

comm = kernel.connect_to_comm('echo')
comm.on_msg = lambda msg: log.info('[%s] echoed: %s', comm.comm_id, msg['content']['data'])
comm.on_close = lambda msg: log.info('[%s] closed', msg['content']['comm_id'])

comm.open()
for i in range(3):
    comm.send({'i': i})
    kernel.poll(500)

comm.close()
kernel.poll(500)
kernel.close()
