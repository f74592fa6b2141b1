from jcomm.disposable import DisposableDelegate


class KernelFuture (object):
    '''
    Reply handle for a message sent on the shell socket

    The kernel connection passes every message whose parent is the sent message to handle_reply,
    handle_iopub or handle_stdin. The future is done once the shell reply (if one is expected) and the
    iopub 'idle' status have both arrived.
    '''
    def __init__(self, msg, expect_reply=False, dispose_on_done=True, dispose_cb=None):
        '''
        :param msg: the message that was sent
        :param expect_reply: if True, the future is not done until a shell reply arrives
        :param dispose_on_done: if True, dispose the future once done
        :param dispose_cb: function of the form f() invoked once on disposal
        '''
        self.__msg = msg
        self.__dispose_on_done = dispose_on_done
        self.__disposable = DisposableDelegate(dispose_cb)

        self.__got_reply = not expect_reply
        self.__got_idle = False
        self.__done = False
        self.reply = None

        self.on_reply = None
        self.on_iopub = None
        self.on_stdin = None
        self.on_done = None


    @property
    def msg(self):
        return self.__msg

    @property
    def msg_id(self):
        return self.__msg['header']['msg_id']

    @property
    def is_done(self):
        return self.__done

    @property
    def is_disposed(self):
        return self.__disposable.is_disposed


    def handle_reply(self, msg):
        if self.is_disposed:
            return
        self.reply = msg
        if self.on_reply is not None:
            self.on_reply(msg)
        self.__got_reply = True
        self._check_done()

    def handle_iopub(self, msg):
        if self.is_disposed:
            return
        if self.on_iopub is not None:
            self.on_iopub(msg)
        if msg['msg_type'] == 'status' and msg['content'].get('execution_state') == 'idle':
            self.__got_idle = True
            self._check_done()

    def handle_stdin(self, msg):
        if self.is_disposed:
            return
        if self.on_stdin is not None:
            self.on_stdin(msg)


    def _check_done(self):
        if self.__done or not (self.__got_reply and self.__got_idle):
            return
        self.__done = True
        if self.on_done is not None:
            self.on_done(self.reply)
        if self.__dispose_on_done:
            self.dispose()


    def dispose(self):
        if self.is_disposed:
            return
        self.on_reply = None
        self.on_iopub = None
        self.on_stdin = None
        self.on_done = None
        self.__disposable.dispose()
