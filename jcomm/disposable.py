class DisposableDelegate (object):
    '''
    Runs a teardown callback exactly once

    The disposed flag is set before the callback is invoked, so calling dispose() again from within the
    callback has no effect.
    '''
    def __init__(self, callback=None):
        '''
        :param callback: function of the form f() invoked on the first call to dispose(), or None
        '''
        self.__callback = callback
        self.__disposed = False


    @property
    def is_disposed(self):
        return self.__disposed


    def dispose(self):
        if self.__disposed:
            return
        self.__disposed = True
        callback, self.__callback = self.__callback, None
        if callback is not None:
            callback()
