import uuid
import logging

import zmq

from jcomm import util
from jcomm.comm import Comm
from jcomm.future import KernelFuture
from jcomm.session import Session


log = logging.getLogger(__name__)


SOCKET_NAMES = ('shell', 'iopub', 'stdin', 'control')


class KernelConnection (object):
    poller_class = zmq.Poller

    def __init__(self, connection, username='', context=None):
        '''
        Connect to a running kernel

        :param connection: connection parameters, as loaded from a kernel connection file
        :param username: the username stamped into outgoing messages
        :param context: ZeroMQ context; a new one is created (and owned) if None
        '''
        key = connection['key']
        transport = connection['transport']
        address = connection['ip']

        # Only a context created here is terminated on dispose
        self.__own_ctx = context is None
        if context is None:
            context = zmq.Context()
        self.__ctx = context

        # Create the four sockets; SHELL, IOPUB, STDIN and CONTROL
        self.shell = self.__ctx.socket(zmq.DEALER)
        self.iopub = self.__ctx.socket(zmq.SUB)
        self.stdin = self.__ctx.socket(zmq.DEALER)
        self.control = self.__ctx.socket(zmq.DEALER)
        # Connect
        for name in SOCKET_NAMES:
            url = '{0}://{1}:{2}'.format(transport, address, connection['{0}_port'.format(name)])
            getattr(self, name).connect(url)
        # Subscribe IOPUB to everything
        self.iopub.setsockopt(zmq.SUBSCRIBE, b'')

        self.__poller = None

        # Create a session for message packing and unpacking
        self.session = Session(key, username, connection.get('signature_scheme', 'hmac-sha256'))

        # Create a message router for each socket
        self.__routers = {name: util.MessageRouter(self, name)   for name in SOCKET_NAMES}

        self.__futures = {}
        self.__comms = {}
        self.__comm_targets = {}
        self.__disposed = False


    @classmethod
    def from_kernel_name(cls, kernel_name, username='', search_path=None):
        '''
        Connect to the kernel whose connection file is identified by kernel_name

        :param kernel_name: kernel name or connection file path (see util.find_connection_file)
        :param username: the username stamped into outgoing messages
        :param search_path: directories to search for the connection file
        :return: the kernel connection
        '''
        return cls(util.load_connection_file(kernel_name, search_path), username)


    @property
    def username(self):
        return self.session.username

    @property
    def client_id(self):
        return self.session.session

    @property
    def is_disposed(self):
        return self.__disposed


    def dispose(self):
        '''
        Shutdown; disposes all outstanding futures and comms and closes the sockets
        :return: None
        '''
        if self.__disposed:
            return
        self.__disposed = True

        for future in list(self.__futures.values()):
            future.dispose()
        for comm in list(self.__comms.values()):
            comm.dispose()
        self.__comm_targets.clear()

        for name in SOCKET_NAMES:
            getattr(self, name).close(linger=0)
        if self.__own_ctx:
            self.__ctx.term()

    close = dispose


    def poll(self, timeout=0):
        '''
        Poll input sockets for incoming messages

        :param timeout: The amount of time to wait for a message in milliseconds.
                -1 = wait indefinitely, 0 = return immediately,
        :return:
        '''
        if self.__disposed:
            return
        if self.__poller is None:
            self.__poller = self.poller_class()
            for name in SOCKET_NAMES:
                self.__poller.register(getattr(self, name), zmq.POLLIN)

        events = dict(self.__poller.poll(None if timeout < 0 else timeout))
        while events and not self.__disposed:
            for name in SOCKET_NAMES:
                sock = getattr(self, name)
                if events.get(sock, 0) & zmq.POLLIN:
                    idents, msg = self.session.recv(sock)
                    self.handle_message(name, idents, msg)
                    if self.__disposed:
                        return

            events = dict(self.__poller.poll(0))


    def handle_message(self, socket_name, idents, msg):
        '''
        Dispatch a message received on a socket

        Messages whose parent is a message sent through send_shell_message are passed to its future.
        Messages are then routed to the _handle_msg_<socket_name>_<msg_type> method, if there is one.

        :param socket_name: 'shell', 'iopub', 'stdin' or 'control'
        :param idents: the ZeroMQ idents
        :param msg: the deserialized message
        '''
        parent_id = msg['parent_header'].get('msg_id')
        future = self.__futures.get(parent_id)   if parent_id is not None   else None
        if future is not None:
            if socket_name == 'shell':
                future.handle_reply(msg)
            elif socket_name == 'iopub':
                future.handle_iopub(msg)
            elif socket_name == 'stdin':
                future.handle_stdin(msg)

        router = self.__routers[socket_name]
        if future is None or router.handles(msg['msg_type']):
            router.handle(idents, msg)


    def send_shell_message(self, msg, expect_reply=False, dispose_on_done=True):
        '''
        Send a message on the SHELL socket

        :param msg: the message to send
        :param expect_reply: if True, the returned future waits for a shell reply before it is done
        :param dispose_on_done: if True, the returned future is disposed when done
        :return: a KernelFuture tracking the reply cycle, or None if this connection has been disposed
        '''
        if self.__disposed:
            return None
        self.session.send(self.shell, msg)
        msg_id = msg['header']['msg_id']

        def on_dispose():
            self.__futures.pop(msg_id, None)

        future = KernelFuture(msg, expect_reply, dispose_on_done, on_dispose)
        self.__futures[msg_id] = future
        return future


    def execute_request(self, code, silent=False, store_history=True, user_expressions=None, allow_stdin=True):
        '''
        Send an execute request to the remote kernel via the SHELL socket

        :param code: the code to execute
        :param silent:
        :param store_history:
        :param user_expressions:
        :param allow_stdin:
        :return: the future
        '''
        msg = self.session.msg('execute_request', {
            'code': code,
            'silent': silent,
            'store_history': store_history,
            'user_expressions': user_expressions   if user_expressions is not None   else {},
            'allow_stdin': allow_stdin
        })
        return self.send_shell_message(msg, True)


    def inspect_request(self, code, cursor_pos, detail_level=0):
        '''
        Send an inspect request to the remote kernel via the SHELL socket

        :param code: the code in which the inspection is requested
        :param cursor_pos: the position of the cursor (in unicode characters) where inspection is requested
        :param detail_level: 0 or 1
        :return: the future
        '''
        msg = self.session.msg('inspect_request', {
            'code': code,
            'cursor_pos': cursor_pos,
            'detail_level': detail_level
        })
        return self.send_shell_message(msg, True)


    def connect_to_comm(self, target_name, comm_id=None):
        '''
        Get the comm with the given id, or create a new one

        The comm is not opened; call open() on a new comm to create its counterpart in the kernel.

        :param target_name: the comm target name
        :param comm_id: the comm id; a new one is generated if None
        :return: the comm, or None if this connection has been disposed
        '''
        if self.__disposed:
            return None
        if comm_id is None:
            comm_id = str(uuid.uuid4())
        try:
            return self.__comms[comm_id]
        except KeyError:
            return self._create_comm(target_name, comm_id)


    def comm_info(self):
        '''
        :return: a dict mapping the id of each live comm to its target name
        '''
        return {comm_id: comm.target_name   for comm_id, comm in self.__comms.items()}


    def register_comm_target(self, target_name, callback):
        '''
        Handle comms opened by the kernel for the given target

        :param target_name: the comm target name
        :param callback: function of the form f(comm, msg) invoked with the new comm and the comm_open message
        '''
        self.__comm_targets[target_name] = callback

    def unregister_comm_target(self, target_name):
        self.__comm_targets.pop(target_name, None)


    def _create_comm(self, target_name, comm_id):
        def on_dispose():
            self.__comms.pop(comm_id, None)

        comm = Comm(target_name, comm_id, self, on_dispose)
        self.__comms[comm_id] = comm
        return comm


    def on_status(self, execution_state):
        pass


    def _handle_msg_iopub_status(self, idents, msg):
        return self.on_status(msg['content']['execution_state'])

    def _handle_msg_iopub_comm_open(self, idents, msg):
        content = msg['content']
        comm_id = content['comm_id']
        target_name = content['target_name']
        callback = self.__comm_targets.get(target_name)
        if callback is None:
            log.warning('No comm target registered for %s; closing comm %s', target_name, comm_id)
            close_msg = self.session.msg('comm_close', {'comm_id': comm_id, 'data': {}})
            self.send_shell_message(close_msg)
            return
        comm = self._create_comm(target_name, comm_id)
        callback(comm, msg)

    def _handle_msg_iopub_comm_msg(self, idents, msg):
        comm = self.__comms.get(msg['content']['comm_id'])
        if comm is None:
            log.warning('comm_msg for unknown comm %s', msg['content']['comm_id'])
        else:
            comm.handle_msg(msg)

    def _handle_msg_iopub_comm_close(self, idents, msg):
        comm = self.__comms.get(msg['content']['comm_id'])
        if comm is None:
            log.warning('comm_close for unknown comm %s', msg['content']['comm_id'])
        else:
            comm.handle_close(msg)
